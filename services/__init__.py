"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- NamingService：房間代碼生成
- RegistryService：參與者 / 選項的加入規則
- BallotService：分數驗證與預設值讀取
- ScoringService：關閉房間時的排名計算
"""
