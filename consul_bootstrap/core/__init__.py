"""
Core bootstrap logic: retry engine, models, configuration and orchestration
"""
