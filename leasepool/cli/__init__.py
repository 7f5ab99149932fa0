"""LeasePool CLI"""
