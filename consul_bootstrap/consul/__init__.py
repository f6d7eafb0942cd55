"""
Clients for the Consul HTTP API
"""
