"""核心层：版本代数、路径匹配、打包、远程目录、依赖解析"""
