"""Contract services"""
