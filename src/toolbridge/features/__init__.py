"""
Fonctionnalités du Tool Bridge.
"""
