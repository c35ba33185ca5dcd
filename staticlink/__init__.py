# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Static-linkage resolver.

Decides which on-disk representation of each native library gets linked, in
what order and from which directories, and checks the finished binary's
dynamic imports against an allow-list.
"""
