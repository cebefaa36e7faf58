"""
Quillpost — Rich-text blog authoring with deferred image uploads.

Posts are edited as a content tree with images staged inline as data URIs.
Saving commits the staged images to object storage, rewrites the tree to
point at them, and persists the post.
"""

__version__ = "0.1.0"
