"""
LogTrace - API Package
"""
