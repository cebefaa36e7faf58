"""
Publishing Module — Save pipeline: commit, slugs, publish state, services.
"""
