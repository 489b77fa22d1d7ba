"""Income Proof - witness-to-proof pipeline and verifier client"""
