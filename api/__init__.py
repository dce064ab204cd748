"""
API 層：WebSocket 協定與唯讀 HTTP endpoints
"""
