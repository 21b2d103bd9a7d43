"""
Numerical components: response matrix, correlation, k-means, PCA,
model selection and cluster reports.
"""
