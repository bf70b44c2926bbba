"""
Object storage backends
"""
