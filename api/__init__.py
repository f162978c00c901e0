"""
API 層

- rooms：房間操作（建立、加入、計時、開始、離開、投票、查詢）
- users：裝置使用者（identity）
- websocket：房間狀態訂閱
"""
