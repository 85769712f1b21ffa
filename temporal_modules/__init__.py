"""
Entity modules built on the temporal kernel.

Each module supplies a frozen domain type, a mapper to the version
envelope and a repository subclass with domain finders.  All temporal
mechanics stay in ``temporal_kernel``.
"""
