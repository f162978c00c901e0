"""
服務層

這個 package 包含純計算與查詢邏輯，不負責房間狀態轉換：
- NamingService：邀請碼與玩家 ID 生成
- RandomizerService：抽 spy、抽地點
- LocationCatalog：地點題庫（en / tr）
- IdentityService：裝置使用者
- ProjectionService：依觀看者遮蔽房間資訊
- SessionService：畫面路由與剩餘時間
- ResultService：計票與勝負
"""
