"""Quality metrics, probing and the quantizer search"""
