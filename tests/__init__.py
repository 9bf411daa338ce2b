"""
DPMM Gibbs — Test Suite
=======================

Test modules:
- test_base_measure.py: Base-measure densities and conjugate draws
- test_stores.py: Assignment and component stores
- test_crp.py: CRP assignment updates
- test_concentration.py: Concentration parameter updates
- test_driver.py: Gibbs driver, cancellation, multiple chains
- test_samples.py: Sample records and persistence
- test_data.py: Observation loading
"""

__version__ = '0.1.0'
