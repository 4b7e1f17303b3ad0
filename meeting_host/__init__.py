"""
meeting_host
~~~~~~~~~~~~

会议主持人（Host）选举与房间生命周期控制服务。
"""
