"""Expression matrix quality filtering."""

from coexlinks.quality.filtering import ExpressionExperimentFilter, FilterConfig, FilterResult

__all__ = ['ExpressionExperimentFilter', 'FilterConfig', 'FilterResult']
