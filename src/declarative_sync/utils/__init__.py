"""
Utils package - helpers used by the synchronizer.

Contains helper modules for:
- Object store access through the Kubernetes dynamic client
- Rule-driven comparison and merging of manifests
- Kubernetes client setup, owner references and error classification
"""
