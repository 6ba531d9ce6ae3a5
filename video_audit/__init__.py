"""
WiBiz video brand audit tool.
"""
