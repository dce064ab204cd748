"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- AllocationService：得標分配演算法
- BudgetService：預算檢查與出價削減
- NamingService：ID 產生與名稱正規化
- SnapshotService：房間公開快照
"""
