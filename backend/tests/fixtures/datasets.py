"""Small datasets shared by tests."""

SALES_CSV = """Region,Sales
North,120
South,80
East,150
West,95
North,60
South,40
"""
