"""
ADHD screening scoring service.
"""
