"""
流程引擎内核
- 定价、账务、审计、归属校验、状态图守卫
"""
