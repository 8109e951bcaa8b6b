"""DMR repeater aggregation.

This package builds a map of DMR repeaters by combining the repeater list
published on the VK DMR network status page with licence and site records
from the ACMA Register of Radiocommunications Licences (RRL).

The work is split between:

- sources: fetching and parsing the status page and the register
- frequency: picking the repeater's operating TX/RX pair
- driver: the per-station pipeline that merges everything
- exporters: KML, CSV and GeoJSON renderers
"""

__version__ = "1.0.0"
