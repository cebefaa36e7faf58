"""
Content Module — The editor's document tree, edits, and text metrics.
"""
