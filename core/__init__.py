"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理所有 game_state 轉換
- RoomStore：單一房間的原子性 compare-and-update
- RoomManager：管理 Room 的完整生命週期（建立、加入、離開、開始、投票）
- Notifier：把提交後的房間狀態推送給訂閱者
"""
