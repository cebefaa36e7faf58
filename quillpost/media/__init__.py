"""
Media Module — Staging, compression and storage of post images.
"""
