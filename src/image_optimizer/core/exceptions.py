"""项目内使用的自定义异常定义。"""


class ImageOptimizerError(Exception):
    """基础异常类型。"""


class InvalidConfigurationError(ImageOptimizerError):
    """配置不合法时抛出。"""


class ValidationError(ImageOptimizerError):
    """输入文件或参数未通过前置校验。"""


class PathResolutionError(ImageOptimizerError):
    """输入/输出路径组合不合法。"""


class CodecError(ImageOptimizerError):
    """图像编解码失败。"""


class NoImagesFoundError(ImageOptimizerError):
    """目录中没有可处理的图片。"""
