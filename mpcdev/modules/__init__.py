"""
MPC Dev Environment modules.

process -> cluster, prereq -> operations -> environment, with api (models) and
config shared by all of them. Each module exposes its interface from its
own __init__ and hides the rest.
"""
