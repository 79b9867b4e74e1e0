"""
通用工具
"""
