"""
批量图像风格变换服务

通过 Replicate 异步任务或本地像素滤镜变换上传的图像。
"""
