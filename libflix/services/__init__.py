"""
Services layer: candidate generation, host policy, loading and resolution.
"""
