"""
POS API - order and tab lifecycle engine for the restaurant point of sale.
"""
