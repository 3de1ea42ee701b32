from gemach.agents.sms_agent import SmsAgent
from gemach.agents.voice_agent import ToolResult, VoiceToolHandler

__all__ = ["SmsAgent", "VoiceToolHandler", "ToolResult"]
