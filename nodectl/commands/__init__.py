from . import config, node

__all__ = ['config', 'node']
