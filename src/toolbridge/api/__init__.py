"""
API HTTP / WebSocket du Tool Bridge.
"""
