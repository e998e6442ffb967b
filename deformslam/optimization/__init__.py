"""Vertices and error terms for graph optimization."""