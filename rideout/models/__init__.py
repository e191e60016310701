"""
Data models: rating categories, items and ratings.
"""
