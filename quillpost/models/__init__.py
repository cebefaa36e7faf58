"""
Models Module — Pydantic records for posts, taxonomy and comments.
"""
