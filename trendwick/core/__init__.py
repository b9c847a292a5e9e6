"""
Core processing: aggregation, decision engine, pipelines and feed glue
"""
