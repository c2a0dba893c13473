"""Task auctions: pricing, ranking, eligibility, bidding and settlement."""
