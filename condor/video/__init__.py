"""Scene segmentation, zones and scene cut scoring"""
