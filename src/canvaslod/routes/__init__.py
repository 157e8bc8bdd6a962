"""HTTP routes for the LOD engine"""
