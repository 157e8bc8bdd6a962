"""Pure LOD engine services and their supporting helpers"""
