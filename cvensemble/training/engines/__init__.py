"""
Member engines (Model / Trainer capabilities) and their registry.
"""
