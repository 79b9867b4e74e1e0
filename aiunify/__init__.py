"""
aiunify - 多供应商 AI 请求执行与响应归一化引擎

对 OpenAI / Claude / Gemini / Ollama 提供统一的对话、图像、结构化 JSON 与流式调用契约，
并负责请求追踪、协作式取消、错误分类和响应归一化。
"""

__version__ = "0.1.0"
