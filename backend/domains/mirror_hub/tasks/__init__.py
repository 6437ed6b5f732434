"""Mirror Hub 运维任务"""
