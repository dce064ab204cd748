"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理每個事件的規則與房間狀態變更
- Manager：把連線的事件路由到正確的房間，管理房間生命週期
- Room Store：保存所有進行中的房間
- Locks / Transaction：並發控制與原子性
"""
