"""
CLI Tools for operating the waitlist pipeline
"""
