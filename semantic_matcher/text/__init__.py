from .processor import ITextProcessor, SimpleTextProcessor

__all__ = ['ITextProcessor', 'SimpleTextProcessor']
