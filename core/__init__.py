"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 Room 的狀態轉換（open -> closed）
- Store：RoomStore 契約與 SQLAlchemy 實作（原子的條件式操作）
- Manager：Room 生命週期與投票帳本
- Locks：並發控制工具
- Deadline：截止時間 / 取消訊號
"""
